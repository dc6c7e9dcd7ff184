"""Run the server: python -m rpg_server"""

from rpg_server.api.main import run

run()
