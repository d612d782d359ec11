"""MapReduce applications, each providing map_func and reduce_func, and a registry to load them by name."""