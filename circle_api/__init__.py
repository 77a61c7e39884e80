"""Circle API - shared resources and time-window claims for link-shared circles."""
