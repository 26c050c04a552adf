"""Package entry point for ``python -m yt_transcriber``.

WHY: Users run the tool as ``python -m yt_transcriber <URL>``. Python's
``-m`` flag looks for ``__main__.py`` inside the package and executes it.

HOW: Delegates to the CLI's main() function.
"""

from yt_transcriber.cli import main

if __name__ == "__main__":
    main()
