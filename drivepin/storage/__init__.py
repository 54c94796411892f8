"""Volume enumeration, letter mutation, privilege checks and mapping files."""
