"""Proctored online quiz attempt engine."""
