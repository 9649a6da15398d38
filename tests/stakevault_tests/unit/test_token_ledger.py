import pytest

from stakevault.core.custody import CustodyCredential, derive_custody_account
from stakevault.core.exceptions import TokenTransferError
from stakevault.core.token_ledger import TokenLedger


@pytest.fixture
def token():
    token = TokenLedger(name="Stake Token", symbol="STK", owner="0xMinter")
    token.mint("0xMinter", "0xAlice", 1_000)
    return token


def test_mint_is_owner_only(token):
    with pytest.raises(TokenTransferError):
        token.mint("0xAlice", "0xAlice", 10)
    assert token.total_supply == 1_000


def test_transfer_requires_sender_identity(token):
    assert token.transfer("0xAlice", "0xBob", "0xAlice", 400) is True
    assert token.balance_of("0xAlice") == 600
    assert token.balance_of("0xBob") == 400

    with pytest.raises(TokenTransferError):
        token.transfer("0xAlice", "0xMallory", "0xMallory", 100)
    assert token.balance_of("0xAlice") == 600


def test_transfer_rejects_overdraft_and_bad_amounts(token):
    with pytest.raises(TokenTransferError, match="exceeds balance"):
        token.transfer("0xAlice", "0xBob", "0xAlice", 1_001)
    with pytest.raises(TokenTransferError):
        token.transfer("0xAlice", "0xBob", "0xAlice", -1)
    with pytest.raises(TokenTransferError):
        token.transfer("0xAlice", "", "0xAlice", 1)
    assert token.balance_of("0xAlice") == 1_000


def test_program_account_only_moves_with_its_credential(token):
    custody = derive_custody_account("STK")
    credential = CustodyCredential.generate(custody)
    token.register_program_account(credential)
    token.transfer("0xAlice", custody, "0xAlice", 500)

    # Naming the account, or presenting a forged credential, is not enough
    with pytest.raises(TokenTransferError):
        token.transfer(custody, "0xMallory", custody, 100)
    with pytest.raises(TokenTransferError):
        token.transfer(custody, "0xMallory", CustodyCredential(custody, "forged"), 100)

    token.transfer(custody, "0xBob", credential, 100)
    assert token.balance_of(custody) == 400
    assert token.balance_of("0xBob") == 100


def test_credential_cannot_spend_plain_accounts(token):
    credential = CustodyCredential.generate(derive_custody_account("STK"))
    token.register_program_account(credential)
    with pytest.raises(TokenTransferError):
        token.transfer("0xAlice", "0xBob", credential, 1)


def test_program_account_registration_is_unique(token):
    custody = derive_custody_account("STK")
    token.register_program_account(CustodyCredential.generate(custody))
    with pytest.raises(TokenTransferError):
        token.register_program_account(CustodyCredential.generate(custody))


def test_custody_account_derivation_is_deterministic():
    assert derive_custody_account("STK") == derive_custody_account("STK")
    assert derive_custody_account("STK") != derive_custody_account("OTHER")
    assert derive_custody_account("STK").startswith("custody:")


def test_credential_repr_hides_token():
    credential = CustodyCredential("custody:abc", "supersecret")
    assert "supersecret" not in repr(credential)


def test_serialization_preserves_balances_and_program_accounts(token):
    custody = derive_custody_account("STK")
    credential = CustodyCredential.generate(custody)
    token.register_program_account(credential)
    token.transfer("0xAlice", custody, "0xAlice", 250)

    restored = TokenLedger.from_dict(token.to_dict())

    assert restored.balance_of(custody) == 250
    assert restored.total_supply == 1_000
    restored.transfer(custody, "0xAlice", CustodyCredential(custody, credential.token), 250)
    assert restored.balance_of("0xAlice") == 1_000
