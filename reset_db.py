from workflow_api.db import create_tables, drop_all_tables, engine

def reset_database():
    """Drop and recreate the workflow tables."""
    print(f"Resetting database at {engine.url.render_as_string(hide_password=True)}...")
    drop_all_tables()
    create_tables()
    print("Database has been reset successfully!")
    print("Run 'python run.py' to start the application.")

if __name__ == "__main__":
    reset_database()
