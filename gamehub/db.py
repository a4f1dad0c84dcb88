from flask_sqlalchemy import SQLAlchemy

# Single SQLAlchemy instance shared by every model and service
db = SQLAlchemy()
