# CallHub -- startup-call program platform.
#
#   config         -- environment configuration
#   database       -- async SQLAlchemy engine and sessions
#   retry          -- retry wrapper for transient database errors
#   models         -- ORM models
#   schemas        -- Pydantic request / response models
#   validation     -- request validation helpers
#   auth           -- bearer-token authentication
#   notifications  -- in-app notification helpers
#   routes/        -- FastAPI routers
#   app            -- FastAPI application
#   scheduler      -- background housekeeping jobs
#   client         -- async HTTP client for the API
#   seed, start    -- console entry points
