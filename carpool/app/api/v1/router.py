"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from carpool.app.api.v1.endpoints import trips, bookings, reviews, users

router = APIRouter()

# Publishing and browsing trips
router.include_router(trips.router)

# Seat reservations
router.include_router(bookings.router)

# Feedback after completed trips
router.include_router(reviews.router)

# Profiles and driver trip history
router.include_router(users.router)
