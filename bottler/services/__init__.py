"""Services: remote resolution, eligibility, PR submission, container builds."""
