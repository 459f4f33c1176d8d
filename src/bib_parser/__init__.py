"""Bib Parser: разбор библиографических записей через LLM."""

__version__ = "0.1.0"
