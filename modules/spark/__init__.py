"""
Spark note sync.

- core/: configuration, logging, exceptions, concurrency, resilience
- schemas/: note models
- store/: local item store
- remote/: remote store backends and the snapshot channel
- services/: reconciliation service, classifier, identity
- events/: sync event envelope and publisher
"""
