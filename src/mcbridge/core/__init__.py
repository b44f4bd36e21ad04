"""Storage, binding and pagination primitives shared by every surface."""
