"""Object metadata introspection and out-of-order mapper configuration.

The `mapperkit` package maps declared object shapes to a uniform property
model and assembles mapper documents that may reference each other in
any order.

Key features:
- accessor discovery across camelCase and snake_case methods,
  properties, annotated fields and slots, cached per type;
- dotted and indexed property path navigation with element types of
  generic containers;
- stable naming of positional call arguments;
- YAML mapper documents whose forward references are deferred and
  retried until resolved or reported.
"""
