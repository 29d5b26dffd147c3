"""Runtime components: connection, registry, dispatch, invocation and streams."""
