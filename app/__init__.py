"""
SumDLB, a video transcript summarizer built with FastAPI, exposing
- an index.html UI,
- a summarize endpoint backed by the Gemini generateContent API,
- and an identity bootstrap against Firebase Authentication that gates the UI.
"""

__version__ = "0.2.0"
