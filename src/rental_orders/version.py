"""Version information for RentalOrders."""

__app_name__ = "RentalOrders"
__version__ = "0.1.0"
