import sys
import os

# Make the project folder importable regardless of the working directory
project_home = os.path.dirname(os.path.abspath(__file__))
if project_home not in sys.path:
    sys.path.insert(0, project_home)

# Import the 'app' variable from main.py as 'application' for the server
from main import app as application  # noqa: E402,F401
