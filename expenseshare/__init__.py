"""ExpenseShare: shared-expense tracking backend."""
