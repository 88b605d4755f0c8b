# Importing the models registers every table with Base.metadata
from recipes_api.models.category import Category, Region
from recipes_api.models.recipe import Recipe

__all__ = ["Category", "Region", "Recipe"]
