"""Game domain services: rounds, seasons, attempts and the leaderboard.

Imported by HTTP routes and socket handlers, keeping transport concerns
separated from the game rules.
"""
