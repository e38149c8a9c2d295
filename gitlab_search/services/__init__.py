"""GitLab access, archive streaming, searching and reporting."""
