#!/usr/bin/env python3
"""
Database seed script for the exam monitoring service
Creates demo staff and students plus two exams of the same course for today,
so the closest-exam lookup and transfers can be tried out immediately.

Usage:
    python seed_database.py
"""
from datetime import datetime, timedelta
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def seed():
    """Seed the database with demo users and exams."""
    from exam_monitor import create_app
    from exam_monitor.models.user import User
    from exam_monitor.services.exam_catalog import get_exam_catalog
    from exam_monitor.services.identity_directory import get_identity_directory
    from exam_monitor.utils.time_utils import get_zone, format_date, format_time

    app = create_app()

    with app.app_context():
        print("🌱 Seeding database...")

        # Check if already seeded
        if User.query.filter_by(id_number="100000001").first():
            print("⚠️ Database already seeded. Skipping...")
            return True

        directory = get_identity_directory()

        print("👤 Creating staff...")
        admin = directory.create_user("100000001", "Admin User", "admin")
        directory.create_user("200000001", "Dr. Test Lecturer", "lecturer")
        directory.create_user("300000001", "Supervisor Room A", "supervisor")
        directory.create_user("300000002", "Supervisor Room B", "supervisor")

        print("👤 Creating students...")
        student_numbers = []
        for i in range(1, 7):
            number = f"40000000{i}"
            directory.create_user(number, f"Student {i}", "student")
            student_numbers.append(number)

        # Start in ten minutes, in the reference timezone, so the exams show up as closest
        zone = get_zone(app.config["EXAM_TIMEZONE"])
        start = (datetime.now(zone) + timedelta(minutes=10)).replace(second=0, microsecond=0)
        end = start + timedelta(hours=2)
        if end.date() != start.date():
            start = start.replace(hour=9, minute=0) + timedelta(days=1)
            end = start + timedelta(hours=2)

        print("📝 Creating exams...")
        catalog = get_exam_catalog()
        exams = []
        for room, supervisor, students in (
            ("A-101", "300000001", student_numbers[:3]),
            ("B-202", "300000002", student_numbers[3:]),
        ):
            exams.append(catalog.create_exam({
                "courseName": "Introduction to Algorithms",
                "courseCode": 10123,
                "date": format_date(start.date()),
                "startTime": format_time(start.time()),
                "endTime": format_time(end.time()),
                "location": room,
                "lecturerIds": ["200000001"],
                "supervisorIds": [supervisor],
                "studentIds": students,
                "rules": [
                    {"id": "calculator", "label": "Calculator", "icon": "calculator", "allowed": True},
                    {"id": "phone", "label": "Phone", "icon": "phone", "allowed": False},
                ],
                "checklist": [
                    {"id": "booklets", "description": "Count exam booklets"},
                    {"id": "ids", "description": "Check student ID cards"},
                ],
            }, actor_id=admin.id))

        print("\n" + "="*50)
        print("✅ Database seeded successfully!")
        print("="*50)
        print("\n📋 DEMO USERS:")
        print("-"*50)
        print(f"{'Role':<12} {'ID number':<12} {'Name':<25}")
        print("-"*50)
        for user in User.query.order_by(User.id_number).all():
            print(f"{user.role:<12} {user.id_number:<12} {user.name:<25}")
        print("-"*50)
        print("\n📚 EXAMS:")
        for exam in exams:
            print(f"   {exam.course_name} | {exam.location} | {format_date(exam.date)} "
                  f"{format_time(exam.start_time)}-{format_time(exam.end_time)} | id {exam.id}")
        print("="*60)

        return True


if __name__ == "__main__":
    seed()
