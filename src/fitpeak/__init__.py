"""FITPEAK backend: social fitness community API."""
