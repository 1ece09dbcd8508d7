"""
Task Deck
Ranked tasks, a multi-week calendar and background weather sync
"""
