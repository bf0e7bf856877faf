"""Business Chauffeur: operational insights across connected systems."""
