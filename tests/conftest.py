import os

# Keep the module-level app off the filesystem during tests.
os.environ.setdefault("DRIVELESS_STORAGE_BACKEND", "memory")
os.environ.setdefault("DRIVELESS_OSRM_BASE_URL", "http://osrm.test")
