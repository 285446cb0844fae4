"""Release pipeline: fetch, stamp, package per target, aggregate, publish."""
