from conftest import wallet


def test_register_admin(app, db):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["register-admin", wallet(3), "--password", "Sup3rSecret"])
    assert result.exit_code == 0, result.output
    assert db.admins.find_one({"wallet_address": wallet(3)})

    result = runner.invoke(args=["register-admin", wallet(3), "--password", "Sup3rSecret"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_register_admin_policy(app, db):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["register-admin", wallet(3), "--password", "weak"])
    assert result.exit_code != 0
    assert db.admins.count_documents({}) == 0
    result = runner.invoke(args=["register-admin", "bogus", "--password", "Sup3rSecret"])
    assert result.exit_code != 0


def test_check_config(app):
    app.config["TWILIO_ACCOUNT_SID"] = ""
    result = app.test_cli_runner().invoke(args=["check-config"])
    assert result.exit_code == 0, result.output
    lines = [line.split() for line in result.output.splitlines()]
    assert ["email", "ok"] in lines
    assert "missing TWILIO_ACCOUNT_SID" in result.output
    assert "chainId: 11155111" in result.output
