from . import admin, aadhaar_admin, auth, email_auth, health, invoice, otp, polls, voters

BLUEPRINTS = (
    health.bp,
    auth.bp,
    voters.bp,
    admin.bp,
    polls.bp,
    email_auth.bp,
    otp.bp,
    aadhaar_admin.bp,
    invoice.bp,
)


def register_blueprints(app):
    for bp in BLUEPRINTS:
        app.register_blueprint(bp)
