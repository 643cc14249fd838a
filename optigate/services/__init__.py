"""Service packages shipped with optigate."""
