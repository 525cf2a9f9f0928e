#!/usr/bin/env python3
"""
Margin auto-borrow controller
Entry point for ``python -m autoborrow.main``
"""
from .cli import main

if __name__ == "__main__":
    main()
