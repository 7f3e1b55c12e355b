"""Agent core: loop, actions, watcher, dispatcher and the concurrency primitives they share."""
