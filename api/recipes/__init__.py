"""
Recipe aggregate: a recipe plus its ordered ingredients and steps.

- `writer`: transactional create / update / delete
- `search`: filtered, paginated reads
- `filters`: WHERE/ORDER BY/LIMIT construction
- `assembler`: rows -> aggregate
- `repository`: the SQL
"""
