"""
Entry point for `python -m relaunch`.
"""
from relaunch.main import run

if __name__ == "__main__":
    run()
