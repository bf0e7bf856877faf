"""Client portal: website projects, change requests, onboarding and leads."""
