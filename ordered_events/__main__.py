"""Allow running the worker as a module: python -m ordered_events."""

from ordered_events.runner import main

if __name__ == "__main__":
    main()
