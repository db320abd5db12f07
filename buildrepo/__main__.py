# buildrepo/__main__.py
from buildrepo.cli import run

run()
