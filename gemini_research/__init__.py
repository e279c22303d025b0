"""gemini-research — plan, run and save Gemini Deep Research jobs from the terminal."""

__version__ = "0.1.0"
