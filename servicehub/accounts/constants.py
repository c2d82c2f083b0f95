"""Skill catalogue used by profiles and post requirements.

The catalogue is seeded from ``SKILL_SEEDS`` the first time it is listed, and
by the ``seed_demo_data`` command.
"""

from __future__ import annotations


SKILL_CATEGORIES = [
    "Frontend",
    "Backend",
    "Mobile",
    "Database",
    "DevOps & Cloud",
    "Design",
    "Data Science",
    "Other",
]


SKILL_SEEDS = [
    ("React", "Frontend"),
    ("Vue.js", "Frontend"),
    ("Angular", "Frontend"),
    ("Next.js", "Frontend"),
    ("Svelte", "Frontend"),
    ("TypeScript", "Frontend"),
    ("JavaScript", "Frontend"),
    ("HTML/CSS", "Frontend"),
    ("Tailwind CSS", "Frontend"),
    ("Node.js", "Backend"),
    ("Express.js", "Backend"),
    ("Python", "Backend"),
    ("Django", "Backend"),
    ("FastAPI", "Backend"),
    ("Ruby on Rails", "Backend"),
    ("Laravel", "Backend"),
    ("Java", "Backend"),
    ("C#/.NET", "Backend"),
    ("Go", "Backend"),
    ("Rust", "Backend"),
    ("GraphQL", "Backend"),
    ("React Native", "Mobile"),
    ("Flutter", "Mobile"),
    ("Swift", "Mobile"),
    ("Kotlin", "Mobile"),
    ("MongoDB", "Database"),
    ("PostgreSQL", "Database"),
    ("MySQL", "Database"),
    ("Redis", "Database"),
    ("Firebase", "Database"),
    ("Supabase", "Database"),
    ("Prisma", "Database"),
    ("Docker", "DevOps & Cloud"),
    ("Kubernetes", "DevOps & Cloud"),
    ("AWS", "DevOps & Cloud"),
    ("Google Cloud", "DevOps & Cloud"),
    ("Azure", "DevOps & Cloud"),
    ("CI/CD", "DevOps & Cloud"),
    ("Linux", "DevOps & Cloud"),
    ("Figma", "Design"),
    ("Adobe XD", "Design"),
    ("Photoshop", "Design"),
    ("Illustrator", "Design"),
    ("UI/UX Design", "Design"),
    ("Motion Design", "Design"),
    ("Machine Learning", "Data Science"),
    ("Data Analysis", "Data Science"),
    ("TensorFlow", "Data Science"),
    ("PyTorch", "Data Science"),
    ("Pandas", "Data Science"),
    ("SQL", "Data Science"),
    ("WordPress", "Other"),
    ("Shopify", "Other"),
    ("SEO", "Other"),
    ("Content Writing", "Other"),
    ("Video Editing", "Other"),
    ("3D Modeling", "Other"),
    ("REST API Design", "Other"),
]
