"""MongoDB collection names used by the trip aggregate and its collaborators."""

TRIPS = "trips"
TRIP_PLANNINGS = "trip_plannings"
TRIP_DAYS = "trip_days"
TRIP_STEPS = "trip_steps"

# Owned by the user and destination modules; only read here.
USERS = "users"
DESTINATIONS = "destinations"
