# Request-scoped FastAPI dependencies (auth).
