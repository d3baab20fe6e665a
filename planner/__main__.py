"""
Entry point for running the planner as a module.

Usage:
    python -m planner solve input.json -o output.json
    python -m planner validate input.json
    python -m planner view output.json --person teacher_1
    python -m planner metrics output.json
"""

from planner.cli import main

if __name__ == "__main__":
    main()
