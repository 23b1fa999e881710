"""Gateway core: session state, command dispatch, batches, and the node cache view."""
