from be_my_guide.routes.trips import router as trips_router

__all__ = ["trips_router"]
