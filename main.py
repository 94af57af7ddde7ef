"""
Stock Guardian - Main Entry Point
=================================
Run this file to start the portfolio CLI.
Usage: python main.py
"""

from guardian.cli import CLI


def main():
    cli = CLI()
    cli.run()


if __name__ == "__main__":
    main()
