"""
Entry point for running the timetabler as a module.

Usage:
    python -m timetabler generate school.json --class S2A
    python -m timetabler validate school.json
    python -m timetabler view school.json --teacher T01
    python -m timetabler audit school.json
"""

from timetabler.cli import main

if __name__ == "__main__":
    main()
