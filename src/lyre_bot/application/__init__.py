"""
Application Layer

Contains use cases, command/query handlers, and application services.
This layer orchestrates domain objects and infrastructure ports to fulfill use cases.

Structure:
- commands/: CQRS write operations (PlayTrackCommand, SkipTrackCommand, StopPlaybackCommand)
- queries/: CQRS read operations (GetQueueQuery)
- services/: Voice join/retry, reconciliation, track completion and metrics
- interfaces/: Port interfaces for infrastructure adapters
"""
