"""``python -m grainbridge``"""
from grainbridge.main import run

if __name__ == "__main__":
    run()
