"""
FastAPI dependencies handing the startup-built repositories to route handlers.

Tests replace these with app.dependency_overrides.
"""

from fastapi import Request

from tours_api.db.repositories import TourRepository, UserRepository


def get_tour_repository(request: Request) -> TourRepository:
    return request.app.state.tour_repository


def get_user_repository(request: Request) -> UserRepository:
    return request.app.state.user_repository
