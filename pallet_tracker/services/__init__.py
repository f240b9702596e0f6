# pallet_tracker/services/__init__.py
