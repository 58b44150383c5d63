"""HTTP routers for the Canvas Flow backend."""
